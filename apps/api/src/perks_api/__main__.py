import uvicorn

from perks_api.core.settings import settings


def main() -> None:
    uvicorn.run(
        "perks_api.app:create_app",
        factory=True,
        reload=settings.environment == "development",
    )


if __name__ == "__main__":
    main()
