"""
NFC Handler for ACS ACR1252 (or any PC/SC) USB NFC Reader/Writer
Watches reader and card events and exposes the tag as 4-byte pages
"""

import logging
import time
from typing import Optional

from smartcard.CardMonitoring import CardMonitor, CardObserver
from smartcard.ReaderMonitoring import ReaderMonitor, ReaderObserver
from smartcard.util import toHexString

from nfc_errors import ReaderIOError
from session_registry import (
    CardAbsent,
    CardPresent,
    ReaderAttached,
    ReaderDetached,
    ReaderError,
    SessionRegistry,
)
from tag_reader import TagReader

logger = logging.getLogger(__name__)


class PCSCTagReader(TagReader):
    """NTAG21x page access through PC/SC pseudo-APDUs"""

    def __init__(self, reader, retries: int = 2):
        self.reader = reader
        self.name = str(reader)
        self.retries = retries
        self.connection = None

    def _connect(self):
        if self.connection is None:
            connection = self.reader.createConnection()
            connection.connect()
            self.connection = connection
        return self.connection

    def _transmit(self, page: int, apdu: list):
        try:
            return self._connect().transmit(apdu)
        except Exception as e:
            # Connection is unusable after a transport error; reconnect next time
            self.release()
            raise ReaderIOError(page, str(e)) from e

    @staticmethod
    def _page_address(index: int) -> int:
        # P2 is a single byte
        if not 0 <= index <= 0xFF:
            raise ReaderIOError(index, "page out of range")
        return index

    def write_block(self, index: int, data: bytes) -> None:
        """Write exactly 4 bytes to a page with small retry on SW1=0x63 (NACK)."""
        if len(data) != 4:
            raise ReaderIOError(index, f"expected 4 bytes, got {len(data)}")
        apdu = [0xFF, 0xD6, 0x00, self._page_address(index), 0x04] + list(data)
        attempts = 0
        while True:
            response, sw1, sw2 = self._transmit(index, apdu)
            if sw1 == 0x90 and sw2 == 0x00:
                return
            if sw1 == 0x63 and attempts < self.retries:
                attempts += 1
                time.sleep(0.05)
                continue
            raise ReaderIOError(index, f"write SW1={sw1:02X} SW2={sw2:02X}")

    def read_block(self, index: int, length: int = 4) -> bytes:
        read_command = [0xFF, 0xB0, 0x00, self._page_address(index), length]
        response, sw1, sw2 = self._transmit(index, read_command)
        if sw1 != 0x90 or sw2 != 0x00:
            raise ReaderIOError(index, f"read SW1={sw1:02X} SW2={sw2:02X}")
        return bytes(response)

    def release(self):
        connection, self.connection = self.connection, None
        if connection is None:
            return
        try:
            connection.disconnect()
        except Exception as e:
            logger.debug(f"Ignoring disconnect error on {self.name}: {e}")


def probe_card(reader) -> Optional[str]:
    """Return the ATR of a card on the reader, or None if there is none"""
    try:
        connection = reader.createConnection()
        connection.connect()
    except Exception:
        return None
    try:
        return toHexString(connection.getATR())
    finally:
        try:
            connection.disconnect()
        except Exception:
            pass


class NFCHandler:
    def __init__(self, registry: SessionRegistry, reader_filter: Optional[str] = None):
        self.registry = registry
        self.reader_filter = reader_filter
        self.reader_monitor = None
        self.card_monitor = None
        self.reader_observer = None
        self.card_observer = None
        self.is_monitoring = False

    def log(self, message: str, level: int = logging.INFO):
        logger.log(level, message)

    def accepts(self, reader_name: str) -> bool:
        return not self.reader_filter or self.reader_filter.lower() in reader_name.lower()

    def start_monitoring(self):
        """Start watching for readers and tags"""
        if self.is_monitoring:
            return

        self.registry.start()
        try:
            self.reader_observer = NFCReaderObserver(self)
            self.reader_monitor = ReaderMonitor()
            self.reader_monitor.addObserver(self.reader_observer)

            self.card_observer = NFCCardObserver(self)
            self.card_monitor = CardMonitor()
            self.card_monitor.addObserver(self.card_observer)
        except Exception as e:
            self.log(f"NFC initialization error: {e}", logging.ERROR)
            # Queued ahead of the stop sentinel, so the dispatcher applies it first
            self.registry.publish(ReaderError(e))
            self._remove_observers()
            self.registry.stop()
            return

        self.is_monitoring = True
        self.log("Started NFC monitoring")

    def _remove_observers(self):
        if self.card_monitor and self.card_observer:
            self.card_monitor.deleteObserver(self.card_observer)
        if self.reader_monitor and self.reader_observer:
            self.reader_monitor.deleteObserver(self.reader_observer)

        self.card_monitor = None
        self.card_observer = None
        self.reader_monitor = None
        self.reader_observer = None

    def stop_monitoring(self):
        """Stop monitoring for readers and tags"""
        if not self.is_monitoring:
            return

        self._remove_observers()
        self.is_monitoring = False
        self.registry.stop()
        self.log("Stopped NFC monitoring")


class NFCReaderObserver(ReaderObserver):
    def __init__(self, nfc_handler: NFCHandler):
        self.nfc_handler = nfc_handler

    def update(self, observable, actions):
        (addedreaders, removedreaders) = actions

        for reader in addedreaders:
            name = str(reader)
            if not self.nfc_handler.accepts(name):
                self.nfc_handler.log(f"Ignoring reader {name}", logging.DEBUG)
                continue
            self.nfc_handler.log(f"{name} device attached")
            self.nfc_handler.registry.publish(ReaderAttached(name, PCSCTagReader(reader)))

            # A tag already lying on the reader may have been reported before the attach
            atr = probe_card(reader)
            if atr:
                self.nfc_handler.registry.publish(CardPresent({"atr": atr}, device_id=name))

        for reader in removedreaders:
            name = str(reader)
            if self.nfc_handler.accepts(name):
                self.nfc_handler.log(f"{name} device removed")
                self.nfc_handler.registry.publish(ReaderDetached(name))


class NFCCardObserver(CardObserver):
    def __init__(self, nfc_handler: NFCHandler):
        self.nfc_handler = nfc_handler

    def update(self, observable, actions):
        (addedcards, removedcards) = actions

        for card in addedcards:
            name = str(card.reader)
            if not self.nfc_handler.accepts(name):
                continue
            atr = toHexString(card.atr)
            self.nfc_handler.log(f"{name} card detected: {atr}")
            self.nfc_handler.registry.publish(CardPresent({"atr": atr}, device_id=name))

        for card in removedcards:
            name = str(card.reader)
            if not self.nfc_handler.accepts(name):
                continue
            self.nfc_handler.log(f"{name} card removed")
            self.nfc_handler.registry.publish(CardAbsent(device_id=name))
