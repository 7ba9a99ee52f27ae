import uvicorn

from smartdesk.config import Settings


def main():
    settings = Settings.from_env()
    uvicorn.run("smartdesk.app:create_app", factory=True, host=settings.app_host, port=settings.app_port)


if __name__ == "__main__":
    main()
