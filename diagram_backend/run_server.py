import os


def main():
    import uvicorn
    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "8010"))
    uvicorn.run("diagram_backend.main:app", host=host, port=port, log_level="info")


if __name__ == "__main__":
    main()
