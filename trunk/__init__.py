"""Build and bundle a Rust WASM web application and its assets."""

__version__ = "0.1.0"