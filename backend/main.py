from pathlib import Path
import logging
import sys

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

BACKEND_DIR = Path(__file__).resolve().parent
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from routers import cards, health, projects, schema
from services.card_registry import CardSystemRegistry
from settings import Settings, setup_logging
from storage.fs_store import FSStore

settings = Settings.from_env()
setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

store = FSStore(settings.data_dir)
store.init_demo_project('demo_project_001')
registry = CardSystemRegistry(store, settings)

allowed_origins = [
    f'http://127.0.0.1:{settings.frontend_port}',
    f'http://localhost:{settings.frontend_port}',
    'http://127.0.0.1:5173',
    'http://localhost:5173',
]

app = FastAPI(title='Card Workbench API')
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

app.include_router(health.router)
app.include_router(schema.router)
app.include_router(projects.router)
app.include_router(cards.router)

logger.info("card workbench data dir: %s", settings.data_dir)
