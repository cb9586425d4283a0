#!/usr/bin/env python3
"""
Run script for the VoiceCare report service
"""
import uvicorn

from voicecare.config.settings import settings
from voicecare.main import app

if __name__ == "__main__":
    uvicorn.run(app, host=settings.host, port=settings.port, reload=settings.debug)
