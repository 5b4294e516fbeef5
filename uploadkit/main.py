import logging

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from uploadkit.api import api
from uploadkit.core.config import LOG_LEVEL

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)

app = FastAPI(title="uploadkit")

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allows all origins
    allow_credentials=True,
    allow_methods=["*"],  # Allows all methods
    allow_headers=["*"],  # Allows all headers
)
app.include_router(api.router)


def run():
    uvicorn.run(
        "uploadkit.main:app",  # Módulo y nombre de la aplicación
        host="127.0.0.1",
        port=8000,
        reload=True,  # Recarga automática en desarrollo
        log_level=LOG_LEVEL.lower()
    )


# Punto de entrada para ejecutar la aplicación
if __name__ == "__main__":
    run()
