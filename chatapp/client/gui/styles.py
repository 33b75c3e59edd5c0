"""Shared style constants for the GUI client."""

SIDEBAR_BG = "#1f2933"
PRIMARY_BG = "#f5f7fa"
ACCENT = "#3b82f6"
TEXT_PRIMARY = "#1f2933"
TEXT_MUTED = "#6b7280"
BUBBLE_SELF = "#dbeafe"
BUBBLE_PEER = "#e5e7eb"
PADDING = 8
BORDER_RADIUS = 6
AVATAR_SIZE = 64
TOAST_MS = 2000

# profile images are stored as small JPEG previews
IMAGE_PREVIEW_WIDTH = 150
IMAGE_JPEG_QUALITY = 50
