import uvicorn

from filevault.core.config import get_settings


def main():
    settings = get_settings()
    uvicorn.run("filevault.main:create_app", factory=True, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
