
import uvicorn
import os
import sys

if __name__ == "__main__":
    # Ensure current directory is in sys.path
    sys.path.append(os.path.dirname(os.path.abspath(__file__)))

    from volunteer_scheduler.config import get_settings

    # reload=True works best when the app string is a package path
    uvicorn.run(
        "volunteer_scheduler.api:app",
        host=os.getenv("VSA_HOST", "localhost"),
        port=int(os.getenv("VSA_PORT", "8000")),
        reload=True,
        log_level=get_settings().log_level.lower(),
    )
