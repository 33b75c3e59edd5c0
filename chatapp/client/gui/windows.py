"""PyQt window classes for the chat GUI."""
from __future__ import annotations

import base64
import html
from functools import partial
from typing import Dict, Optional

import requests
from PyQt6.QtCore import QBuffer, QByteArray, QIODevice, Qt, pyqtSignal
from PyQt6.QtGui import QIcon, QImage, QPixmap, QTextOption
from PyQt6.QtWidgets import (
    QApplication,
    QDialog,
    QFileDialog,
    QFormLayout,
    QGridLayout,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QPushButton,
    QTabWidget,
    QTextEdit,
    QVBoxLayout,
    QWidget,
)

from ..config import DEFAULT_SERVER_URL
from ..storage import is_signed_in
from ..sync import ConversationSynchronizer, ViewUpdate
from ...shared.dto import MessageDTO, UserDTO
from ...shared.utils import readable_datetime
from .app import ChatController, describe_error
from .styles import (
    ACCENT,
    AVATAR_SIZE,
    BORDER_RADIUS,
    BUBBLE_PEER,
    BUBBLE_SELF,
    IMAGE_JPEG_QUALITY,
    IMAGE_PREVIEW_WIDTH,
    PADDING,
    PRIMARY_BG,
    SIDEBAR_BG,
    TEXT_MUTED,
    TEXT_PRIMARY,
    TOAST_MS,
)


def encode_image(image: QImage) -> str:
    """Scale an image to preview width and return it as base64 JPEG."""
    preview = image.scaledToWidth(IMAGE_PREVIEW_WIDTH, Qt.TransformationMode.FastTransformation)
    data = QByteArray()
    buffer = QBuffer(data)
    buffer.open(QIODevice.OpenModeFlag.WriteOnly)
    preview.save(buffer, "JPEG", IMAGE_JPEG_QUALITY)
    buffer.close()
    return base64.b64encode(bytes(data)).decode()


def pixmap_from_encoded(encoded: str, size: int = AVATAR_SIZE) -> QPixmap:
    pixmap = QPixmap()
    if encoded:
        pixmap.loadFromData(base64.b64decode(encoded))
    if pixmap.isNull():
        return pixmap
    return pixmap.scaled(
        size, size, Qt.AspectRatioMode.KeepAspectRatio, Qt.TransformationMode.SmoothTransformation
    )


class ServerConfigDialog(QDialog):
    """Dialog used to collect the server URL on first launch."""

    def __init__(self, parent: QWidget | None = None, prefill: str | None = None):
        super().__init__(parent)
        self.setWindowTitle("Server configuration")
        layout = QFormLayout(self)
        self.url_input = QLineEdit(prefill or DEFAULT_SERVER_URL)
        layout.addRow("Server URL", self.url_input)
        btn = QPushButton("Save & connect")
        btn.clicked.connect(self.accept)
        layout.addWidget(btn)

    def server_url(self) -> str:
        return self.url_input.text().strip()


class LoginWindow(QMainWindow):
    """Sign in and sign up entry window."""

    signed_in = pyqtSignal()

    def __init__(self, controller: ChatController):
        super().__init__()
        self.controller = controller
        self.encoded_image: Optional[str] = None
        self.setWindowTitle("Chat – Sign in")
        self.resize(640, 480)
        self._ensure_server_url()
        self._build_ui()

    def toast(self, message: str) -> None:
        self.statusBar().showMessage(message, TOAST_MS)

    def _ensure_server_url(self) -> None:
        if not self.controller.base_url:
            dialog = ServerConfigDialog(self)
            if dialog.exec() == QDialog.DialogCode.Accepted:
                self.controller.set_base_url(dialog.server_url())
            else:
                self.close()
        else:
            self.controller.set_base_url(self.controller.base_url)

    def _build_ui(self) -> None:
        tabs = QTabWidget()
        tabs.addTab(self._build_sign_in_tab(), "Sign in")
        tabs.addTab(self._build_sign_up_tab(), "Sign up")
        self.setCentralWidget(tabs)

    def _build_sign_in_tab(self) -> QWidget:
        widget = QWidget()
        layout = QFormLayout(widget)
        self.login_email = QLineEdit()
        self.login_password = QLineEdit()
        self.login_password.setEchoMode(QLineEdit.EchoMode.Password)
        layout.addRow("Email", self.login_email)
        layout.addRow("Password", self.login_password)
        self.login_error = QLabel()
        self.login_error.setStyleSheet("color: red")
        self.login_btn = QPushButton("Sign in")
        self.login_btn.clicked.connect(self._sign_in)
        layout.addRow(self.login_error)
        layout.addRow(self.login_btn)
        return widget

    def _build_sign_up_tab(self) -> QWidget:
        widget = QWidget()
        layout = QFormLayout(widget)
        self.image_preview = QLabel("Add image")
        self.image_preview.setFixedSize(AVATAR_SIZE, AVATAR_SIZE)
        self.image_preview.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.image_preview.setStyleSheet(f"color: {TEXT_MUTED}; border: 1px dashed {TEXT_MUTED}")
        pick_btn = QPushButton("Choose image")
        pick_btn.clicked.connect(self._pick_image)
        image_row = QHBoxLayout()
        image_row.addWidget(self.image_preview)
        image_row.addWidget(pick_btn)
        image_row.addStretch()
        layout.addRow(image_row)

        self.reg_name = QLineEdit()
        self.reg_last_name = QLineEdit()
        self.reg_email = QLineEdit()
        self.reg_password = QLineEdit()
        self.reg_password.setEchoMode(QLineEdit.EchoMode.Password)
        self.reg_confirm = QLineEdit()
        self.reg_confirm.setEchoMode(QLineEdit.EchoMode.Password)
        layout.addRow("First name", self.reg_name)
        layout.addRow("Last name", self.reg_last_name)
        layout.addRow("Email", self.reg_email)
        layout.addRow("Password", self.reg_password)
        layout.addRow("Confirm", self.reg_confirm)
        self.reg_error = QLabel()
        self.reg_error.setStyleSheet("color: red")
        self.reg_btn = QPushButton("Sign up")
        self.reg_btn.clicked.connect(self._sign_up)
        layout.addRow(self.reg_error)
        layout.addRow(self.reg_btn)
        return widget

    def _pick_image(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "Choose profile image", "", "Images (*.png *.jpg *.jpeg *.bmp)")
        if not path:
            return
        image = QImage(path)
        if image.isNull():
            self.toast("Could not read that image")
            return
        self.encoded_image = encode_image(image)
        self.image_preview.setPixmap(pixmap_from_encoded(self.encoded_image))

    def _loading(self, button: QPushButton, is_loading: bool, idle_text: str) -> None:
        button.setEnabled(not is_loading)
        button.setText("Please wait…" if is_loading else idle_text)
        QApplication.processEvents()

    def _sign_in(self) -> None:
        self.login_error.clear()
        self._loading(self.login_btn, True, "Sign in")
        try:
            self.controller.sign_in(self.login_email.text(), self.login_password.text())
        except (ValueError, RuntimeError, requests.RequestException) as exc:
            self.login_error.setText(describe_error(exc))
            self.toast(describe_error(exc))
            return
        finally:
            self._loading(self.login_btn, False, "Sign in")
        self.signed_in.emit()

    def _sign_up(self) -> None:
        self.reg_error.clear()
        self._loading(self.reg_btn, True, "Sign up")
        try:
            self.controller.sign_up(
                self.reg_name.text(),
                self.reg_last_name.text(),
                self.reg_email.text(),
                self.reg_password.text(),
                self.reg_confirm.text(),
                self.encoded_image,
            )
        except (ValueError, RuntimeError, requests.RequestException) as exc:
            self.reg_error.setText(describe_error(exc))
            self.toast(describe_error(exc))
            return
        finally:
            self._loading(self.reg_btn, False, "Sign up")
        self.signed_in.emit()


class MainChatWindow(QMainWindow):
    """Contact list sidebar and the chat view for the selected contact."""

    signed_out = pyqtSignal()
    # carries ViewUpdate from the conversation's event thread to the GUI thread
    view_updated = pyqtSignal(int, object)

    def __init__(self, controller: ChatController):
        super().__init__()
        self.controller = controller
        self.conversation: Optional[ConversationSynchronizer] = None
        self._generation = 0
        self.peer: Optional[UserDTO] = None
        self.user_cache: Dict[int, UserDTO] = {}
        self.setWindowTitle("Chat")
        self.resize(1024, 720)
        self.view_updated.connect(self._render_update, Qt.ConnectionType.QueuedConnection)
        self._build_ui()
        self.refresh_users()

    def toast(self, message: str) -> None:
        self.statusBar().showMessage(message, TOAST_MS)

    def _build_ui(self) -> None:
        container = QWidget()
        layout = QHBoxLayout(container)
        layout.addWidget(self._build_sidebar(), 1)
        layout.addWidget(self._build_main_area(), 3)
        container.setStyleSheet(
            f"QWidget {{ background: {PRIMARY_BG}; color: {TEXT_PRIMARY}; }}\n"
            f"QLineEdit, QTextEdit {{ background: white; border: 1px solid #d1d5db; border-radius: {BORDER_RADIUS}px; }}\n"
            f"QPushButton {{ background: {ACCENT}; color: white; padding: 6px 12px; border-radius: {BORDER_RADIUS}px; }}\n"
            f"QPushButton:hover {{ background: #2563eb; }}"
        )
        self.setCentralWidget(container)

    def _build_sidebar(self) -> QWidget:
        widget = QWidget()
        widget.setStyleSheet(f"background: {SIDEBAR_BG}; color: white")
        layout = QVBoxLayout(widget)
        layout.setContentsMargins(PADDING, PADDING, PADDING, PADDING)

        user = self.controller.user or {}
        profile_box = QGroupBox("Profile")
        profile_layout = QVBoxLayout(profile_box)
        avatar = QLabel()
        avatar.setPixmap(pixmap_from_encoded(user.get("image", "")))
        profile_layout.addWidget(avatar)
        profile_layout.addWidget(QLabel(f"{user.get('name', '')} {user.get('last_name', '')}".strip()))
        sign_out_btn = QPushButton("Sign out")
        sign_out_btn.clicked.connect(self._sign_out)
        profile_layout.addWidget(sign_out_btn)
        layout.addWidget(profile_box)

        self.users_status = QLabel("Loading…")
        self.users_status.setStyleSheet(f"color: {TEXT_MUTED}")
        layout.addWidget(self.users_status)
        self.chat_list = QListWidget()
        self.chat_list.itemSelectionChanged.connect(self._chat_selected)
        layout.addWidget(self.chat_list, 1)
        return widget

    def _build_main_area(self) -> QWidget:
        widget = QWidget()
        grid = QGridLayout(widget)
        self.chat_title = QLabel("Select a chat")
        self.chat_title.setStyleSheet("font-size: 16px; font-weight: bold")
        grid.addWidget(self.chat_title, 0, 0, 1, 2)

        self.messages_view = QTextEdit()
        self.messages_view.setReadOnly(True)
        self.messages_view.setWordWrapMode(QTextOption.WrapMode.WordWrap)
        grid.addWidget(self.messages_view, 1, 0, 1, 2)

        self.message_input = QTextEdit()
        self.message_input.setFixedHeight(80)
        grid.addWidget(self.message_input, 2, 0)

        send_btn = QPushButton("Send")
        send_btn.clicked.connect(self._send_message)
        grid.addWidget(send_btn, 2, 1)
        return widget

    def refresh_users(self) -> None:
        self.users_status.setText("Loading…")
        self.users_status.show()
        try:
            users = self.controller.list_users()
        except (RuntimeError, requests.RequestException) as exc:
            self.toast(f"Failed to load users: {describe_error(exc)}")
            users = []
        self.chat_list.clear()
        if not users:
            self.users_status.setText("No user available")
            return
        self.users_status.hide()
        for u in users:
            self.user_cache[u.id] = u
            item = QListWidgetItem(u.display_name)
            item.setIcon(QIcon(pixmap_from_encoded(u.image)))
            item.setToolTip(u.email)
            item.setData(Qt.ItemDataRole.UserRole, u.id)
            self.chat_list.addItem(item)

    def _chat_selected(self) -> None:
        items = self.chat_list.selectedItems()
        if not items:
            return
        peer = self.user_cache.get(items[0].data(Qt.ItemDataRole.UserRole))
        if peer is None or (self.peer is not None and peer.id == self.peer.id):
            return
        self._close_conversation()
        self.peer = peer
        self.chat_title.setText(peer.display_name)
        self.messages_view.setPlainText("Loading…")
        self._generation += 1
        try:
            self.conversation = self.controller.open_conversation(
                peer.id, listener=partial(self.view_updated.emit, self._generation)
            )
        except (ValueError, RuntimeError) as exc:
            self.messages_view.clear()
            self.toast(str(exc))

    def _format_message(self, msg: MessageDTO) -> str:
        mine = msg.sender_id == self.controller.user_id
        align = "right" if mine else "left"
        bubble_color = BUBBLE_SELF if mine else BUBBLE_PEER
        return (
            f'<div style="text-align:{align}; margin:6px 0;">'
            f'<span style="display:inline-block; background:{bubble_color}; padding:8px; border-radius:8px;">'
            f"{html.escape(msg.body)}</span><br/>"
            f'<small style="color:{TEXT_MUTED}">{readable_datetime(msg.sent_at)}</small></div>'
        )

    def _render_update(self, generation: int, update: ViewUpdate) -> None:
        # updates queued by a conversation that has since been replaced
        if generation != self._generation or self.conversation is None or self.conversation.closed:
            return
        if not update.first_population and update.added == 0 and update.messages:
            return
        self.messages_view.setHtml("".join(self._format_message(m) for m in update.messages))
        if not update.first_population:
            # incremental update: follow the newest message
            cursor = self.messages_view.textCursor()
            cursor.movePosition(cursor.MoveOperation.End)
            self.messages_view.setTextCursor(cursor)
            self.messages_view.ensureCursorVisible()

    def _send_message(self) -> None:
        if self.conversation is None:
            self.toast("Select a chat first")
            return
        text = self.message_input.toPlainText().strip()
        if not text:
            return
        self.conversation.send(text)
        self.message_input.clear()

    def _close_conversation(self) -> None:
        if self.conversation is not None:
            self.conversation.close()
            self.conversation = None
        self.peer = None

    def _sign_out(self) -> None:
        if not self.controller.sign_out():
            return
        self._close_conversation()
        self.signed_out.emit()
        self.close()

    def closeEvent(self, event) -> None:  # noqa: N802
        self._close_conversation()
        super().closeEvent(event)


class ChatApplication:
    """Top-level class wiring windows together."""

    def __init__(self):
        self.app = QApplication.instance() or QApplication([])
        self.main_window: Optional[MainChatWindow] = None
        self.controller = ChatController(notify=self._toast)
        self.login_window = LoginWindow(self.controller)
        self.login_window.signed_in.connect(self._on_signed_in)

    def _toast(self, message: str) -> None:
        window = self.main_window if self.main_window is not None else self.login_window
        window.toast(message)

    def _on_signed_in(self) -> None:
        self.main_window = MainChatWindow(self.controller)
        self.main_window.signed_out.connect(self._show_login)
        self.login_window.hide()
        self.main_window.show()

    def _show_login(self) -> None:
        self.login_window.show()
        if self.main_window:
            self.main_window.close()
            self.main_window = None

    def run(self) -> int:
        if is_signed_in() and self.controller.user:
            self.controller.update_push_token()
            self._on_signed_in()
        else:
            self.login_window.show()
        return self.app.exec()


__all__ = ["ChatApplication", "LoginWindow", "MainChatWindow", "encode_image"]
