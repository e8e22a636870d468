import uvicorn

from config import HOST, PORT

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=HOST,
        port=PORT,
        reload=True,
        # Exclude uploaded clips and rendered media from the reload watcher
        reload_excludes=["uploads/*", "public/*", "public/combinations/*"]
    )
