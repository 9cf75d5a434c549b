"""
TUI Interface for NFC JSON Tag
Built with Textual for modern terminal user interface
"""

import json
import logging

import pyperclip
from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal
from textual.message import Message
from textual.widgets import Button, Footer, Header, Input, Label, RichLog

from nfc_errors import NFCTagError
from nfc_logging import configure_logging
from session_registry import SessionRegistry
from tag_codec import MAX_PAYLOAD_BYTES, serialize_payload
from tag_operations import read_payload, write_payload


class LogLine(Message):
    """A formatted log record on its way to the log panel"""

    def __init__(self, line: str) -> None:
        super().__init__()
        self.line = line


class RichLogHandler(logging.Handler):
    """Forward log records from any thread to the app's log panel"""

    def __init__(self, app: App):
        super().__init__()
        self.app = app
        self.setFormatter(logging.Formatter("[LIVE] %(levelname)s %(message)s"))

    def emit(self, record):
        try:
            # post_message is safe to call from monitor and worker threads
            self.app.post_message(LogLine(self.format(record)))
        except Exception:
            self.handleError(record)


class NFCApp(App):
    """Main NFC TUI Application"""

    CSS = """
    .status-panel {
        height: 5;
        border: solid $secondary;
        margin: 1;
    }

    .input-panel {
        height: 7;
        border: solid $secondary;
        margin: 1;
    }

    .log-panel {
        height: 20;
        border: solid $secondary;
        margin: 1;
    }

    Button {
        margin: 1;
    }

    Input {
        margin: 1;
    }
    """

    BINDINGS = [
        Binding("ctrl+c", "quit", "Quit"),
        # Priority so the payload Input (ctrl+w deletes a word there) cannot swallow them
        Binding("ctrl+w", "write_tag", "Write", priority=True),
        Binding("ctrl+r", "read_tag", "Read", priority=True),
        Binding("ctrl+l", "reset", "Reset", priority=True),
        Binding("ctrl+y", "copy_last_payload", "Copy Last JSON", priority=True),
    ]

    def __init__(self, registry: SessionRegistry, handler=None, strict_reads: bool = False):
        super().__init__()
        self.registry = registry
        self.nfc_handler = handler
        self.strict_reads = strict_reads
        self.last_payload = None
        self.log_widget = None
        self.payload_input = None
        self.size_label = None
        self.log_handler = None
        self.tag_busy = False

    def compose(self) -> ComposeResult:
        """Create the UI layout"""
        yield Header()

        with Container():
            with Container(classes="status-panel"):
                yield Label("Reader Status: Initializing...", id="status-label")
                yield Label("Tag: none", id="card-label")

            with Container(classes="input-panel", id="input-panel"):
                yield Input(placeholder='JSON object to write, e.g. {"id": 42}', id="payload-input")
                yield Label(f"0 / {MAX_PAYLOAD_BYTES} bytes", id="size-label")

            with Horizontal():
                yield Button("✏️ Write (Ctrl+W)", id="write-btn", variant="warning")
                yield Button("📖 Read (Ctrl+R)", id="read-btn", variant="success")
                yield Button("📋 Copy JSON", id="copy-btn", variant="primary")
                yield Button("🔄 Reset", id="reset-btn", variant="default")
                yield Button("❌ Quit", id="quit-btn", variant="error")

            with Container(classes="log-panel"):
                yield RichLog(id="log", highlight=True, markup=False)

        yield Footer()

    def on_mount(self) -> None:
        """Initialize the application"""
        self.log_widget = self.query_one("#log", RichLog)
        self.payload_input = self.query_one("#payload-input", Input)
        self.size_label = self.query_one("#size-label", Label)

        self.log_handler = RichLogHandler(self)
        logging.getLogger().addHandler(self.log_handler)

        if self.nfc_handler is not None:
            self.nfc_handler.start_monitoring()

        self.refresh_status()
        self.set_interval(0.5, self.refresh_status)

    def refresh_status(self) -> None:
        snapshot = self.registry.snapshot()
        if snapshot["reader"] is None:
            reader_text = "Not Found ❌"
        else:
            reader_text = f"Connected ✅ ({snapshot['reader']})"
        self.query_one("#status-label", Label).update(f"Reader Status: {reader_text}")

        card = snapshot["card"]
        card_text = "Tag: none" if card is None else f"Tag: present {card.get('atr', '')}"
        self.query_one("#card-label", Label).update(card_text)

    def on_unmount(self) -> None:
        if self.log_handler is not None:
            logging.getLogger().removeHandler(self.log_handler)
            self.log_handler = None

    def on_log_line(self, message: LogLine) -> None:
        self.log_widget.write(message.line)

    def on_input_changed(self, event: Input.Changed) -> None:
        """Show the serialized size while typing"""
        if event.input.id != "payload-input":
            return
        try:
            size = len(serialize_payload(json.loads(event.value)))
        except (ValueError, TypeError):
            self.size_label.update(f"not a JSON object / {MAX_PAYLOAD_BYTES} bytes")
            return
        marker = "⚠️ " if size > MAX_PAYLOAD_BYTES else ""
        self.size_label.update(f"{marker}{size} / {MAX_PAYLOAD_BYTES} bytes")

    def action_write_tag(self):
        """Write the JSON in the input to the tag"""
        text = self.payload_input.value.strip()
        if not text:
            self.log_widget.write("❌ Please enter a JSON object")
            return
        try:
            payload = json.loads(text)
        except ValueError as e:
            self.log_widget.write(f"❌ Invalid JSON: {e}")
            return
        if not isinstance(payload, dict):
            self.log_widget.write("❌ Only JSON objects can be written")
            return

        if self.claim_tag():
            self.write_worker(payload)

    def action_read_tag(self):
        """Read the JSON stored on the tag"""
        if self.claim_tag():
            self.read_worker()

    def claim_tag(self) -> bool:
        """Allow one tag operation at a time"""
        if self.tag_busy:
            self.log_widget.write("⏳ Tag operation already in progress")
            return False
        self.tag_busy = True
        return True

    @work(thread=True, group="tag-io")
    def write_worker(self, payload: dict):
        """Runs in a thread: page writes block until the reader answers"""
        try:
            blocks = write_payload(self.registry, payload)
        except NFCTagError as e:
            self.call_from_thread(self.log_widget.write, f"❌ {e.kind}: {e}")
        else:
            self.call_from_thread(self.log_widget.write, f"✅ Data successfully written to NFC tag ({blocks} blocks)")
        finally:
            self.tag_busy = False

    @work(thread=True, group="tag-io")
    def read_worker(self):
        try:
            payload = read_payload(self.registry, strict=self.strict_reads)
        except NFCTagError as e:
            self.call_from_thread(self.log_widget.write, f"❌ {e.kind}: {e}")
        else:
            self.call_from_thread(self.show_payload, payload)
        finally:
            self.tag_busy = False

    def show_payload(self, payload: dict):
        self.last_payload = payload
        self.log_widget.write(f"📖 Tag read: {json.dumps(payload, ensure_ascii=False)}")

    def action_copy_last_payload(self):
        """Copy the last read JSON to clipboard"""
        if self.last_payload is None:
            self.log_widget.write("❌ No JSON to copy - read a tag first")
            return
        try:
            pyperclip.copy(json.dumps(self.last_payload, ensure_ascii=False))
            self.log_widget.write("📋 Copied to clipboard")
        except pyperclip.PyperclipException as e:
            self.log_widget.write(f"❌ Error copying to clipboard: {e}")

    def action_reset(self):
        """Reset the application"""
        self.log_widget.clear()
        self.payload_input.value = ""
        self.last_payload = None
        self.log_widget.write("🔄 Application reset")

    def action_quit(self):
        """Quit the application"""
        if self.nfc_handler is not None:
            self.nfc_handler.stop_monitoring()
        self.exit()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        """Handle button press events"""
        button_id = event.button.id

        if button_id == "write-btn":
            self.action_write_tag()
        elif button_id == "read-btn":
            self.action_read_tag()
        elif button_id == "copy-btn":
            self.action_copy_last_payload()
        elif button_id == "reset-btn":
            self.action_reset()
        elif button_id == "quit-btn":
            self.action_quit()


def main(settings=None):
    """Main entry point"""
    from main import Settings, open_session

    settings = settings or Settings()
    configure_logging(settings.debug, console=False)
    registry, handler = open_session(settings, start=False)
    app = NFCApp(registry, handler)
    app.run()


if __name__ == "__main__":
    main()
