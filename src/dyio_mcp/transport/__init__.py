"""Transports carrying the DyIO byte stream."""

from .base import Transport
from .serial_connection import SerialConnection
