"""
Run the API server: ``python -m photo_manager``.
"""
import os

import uvicorn


def main() -> None:
    uvicorn.run(
        "photo_manager.main:create_app",
        factory=True,
        host=os.environ.get("PHOTO_MANAGER_HOST", "0.0.0.0"),
        port=int(os.environ.get("PHOTO_MANAGER_PORT", "8000")),
    )


if __name__ == "__main__":
    main()
