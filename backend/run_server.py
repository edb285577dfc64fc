# run_server.py
import uvicorn
from prodledger.main import app

if __name__ == "__main__":
    uvicorn.run(
        app,
        host="127.0.0.1",
        port=3029,
        log_level="info",
    )
