from orgsync.config.settings import settings


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("orgsync.app:app", host=settings.host, port=settings.port, reload=False)
