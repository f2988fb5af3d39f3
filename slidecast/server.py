import uvicorn

from slidecast.core.config import settings


def run() -> None:
    uvicorn.run("slidecast.main:app", host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
