# API package - FastAPI application, routes and schemas
