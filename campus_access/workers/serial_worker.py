# =======================================================================================
# campus_access/workers/serial_worker.py - Background Serial Worker
# =======================================================================================
import json
import logging
import threading
import time

from pydantic import ValidationError

from ..config import config
from ..models.schemas import SerialMessage
from ..services.reader_service import ReaderService

logger = logging.getLogger(__name__)

try:
    import serial
except ImportError:
    serial = None


class SerialWorker:
    """Background worker for line-delimited JSON from a USB reader hub."""

    def __init__(self, reader_service: ReaderService):
        self.reader_service = reader_service
        self.running = False

    # ------------------------------------------------------------------
    # Start / Stop
    # ------------------------------------------------------------------
    def start(self) -> bool:
        """Start the serial worker in a background thread."""
        if not self._should_start():
            return False

        self.running = True
        thread = threading.Thread(target=self._run_loop, name="serial-worker", daemon=True)
        thread.start()
        logger.info("Serial worker started on %s", config.SERIAL_PORT)
        return True

    def stop(self):
        """Stop the serial worker."""
        self.running = False

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------
    def _should_start(self) -> bool:
        """Check if serial worker should start."""
        if not config.SERIAL_PORT:
            logger.debug("SERIAL_PORT not configured; skipping reader hub worker")
            return False

        if serial is None:
            logger.warning("pyserial not installed; skipping reader hub worker")
            return False

        return True

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------
    def _run_loop(self):
        """Main serial communication loop."""
        while self.running:
            try:
                self._handle_serial_connection()
            except Exception as e:
                logger.error("Serial connection error: %s, retrying in 3s", e)
                time.sleep(3)

    def handle_line(self, line: str):
        """Parse one line from the hub; returns the reply dict or None."""
        try:
            msg = SerialMessage.model_validate_json(line)
        except ValidationError as e:
            logger.debug("Parse error: %s | line=%s", e, line)
            return None

        logger.debug("Received: %s", msg)
        return self.reader_service.process_rfid_request(msg)

    # ------------------------------------------------------------------
    # Serial handler
    # ------------------------------------------------------------------
    def _handle_serial_connection(self):
        """Handle serial connection and message processing."""
        logger.info("Opening %s @ %s", config.SERIAL_PORT, config.SERIAL_BAUD)

        with serial.Serial(
            config.SERIAL_PORT, config.SERIAL_BAUD, timeout=config.SERIAL_TIMEOUT
        ) as ser:
            while self.running:
                line = ser.readline().decode(errors="ignore").strip()
                if not line:
                    continue

                response = self.handle_line(line)
                if response:
                    ser.write((json.dumps(response) + "\n").encode())
                    logger.debug("Sent: %s", response)
