"""RQ worker job: delete option images that no product references any more."""
import logging
from flask import current_app, has_app_context

from storefront.services import storage_service

logger = logging.getLogger(__name__)

_worker_app = None


def _get_app():
    """Return an app instance for worker execution.

    Reuse the current app when already inside an app context (tests/CLI,
    inline queue), otherwise lazily create the worker app once.
    """
    global _worker_app
    if has_app_context():
        return current_app._get_current_object()
    if _worker_app is None:
        from storefront import create_app

        _worker_app = create_app()
    return _worker_app


def delete_images(urls):
    """Best-effort delete of each URL from the asset store.

    Every URL is attempted independently. Failures are logged and never
    retried; the product data that dropped the reference is already saved.

    Returns the list of URLs that were deleted.
    """
    app = _get_app()
    deleted = []
    with app.app_context():
        for url in dict.fromkeys(urls):
            if not url:
                continue
            try:
                if storage_service.delete_by_url(url):
                    deleted.append(url)
            except Exception:
                logger.exception("Failed to delete orphaned image %s", url)
    if deleted:
        logger.info("Deleted %d orphaned image(s)", len(deleted))
    return deleted
