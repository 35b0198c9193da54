"""FastAPI presentation layer: dependencies, schemas and routers."""
