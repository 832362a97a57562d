"""api/ -- FastAPI application object, request/response models, error handlers."""
