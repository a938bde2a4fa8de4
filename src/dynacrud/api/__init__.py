"""HTTP surface: FastAPI app and generated routers."""
