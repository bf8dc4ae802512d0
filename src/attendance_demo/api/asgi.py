"""ASGI entrypoint for the attendance demo API."""

from attendance_demo.api.app import create_app
from attendance_demo.containers import build_container

app = create_app(build_container())
