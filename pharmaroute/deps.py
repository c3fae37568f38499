# pharmaroute/deps.py
from fastapi import Request

from pharmaroute.core.config import Settings, get_settings


def build_repo(settings: Settings):
    if settings.use_mongo:
        from pharmaroute.core.db import get_db
        from pharmaroute.repos.mongo import MongoRepo
        return MongoRepo(get_db())
    from pharmaroute.repos.inmemory import InMemoryRepo
    return InMemoryRepo()


# Everything below is wired onto app.state by main.create_app()
def get_repo(request: Request):
    return request.app.state.repo


def get_lifecycle(request: Request):
    return request.app.state.lifecycle


def get_board(request: Request):
    return request.app.state.board


def get_oracle(request: Request):
    return request.app.state.oracle


def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()
