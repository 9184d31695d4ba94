from budget_guard.core.app_factory import create_app

app = create_app()


if __name__ == "__main__":
    import uvicorn

    # Single worker: the limiter table is per-process.
    uvicorn.run("budget_guard.main:app", host="0.0.0.0", port=8000, workers=1)
