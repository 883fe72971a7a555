"""
Capture/share pipeline: compose -> encode -> store -> shorten -> qr.

Storage, shortening and QR encoding are external collaborators reached
through the narrow adapters in this package.
"""
