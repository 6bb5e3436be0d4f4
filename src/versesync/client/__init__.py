"""Client-side offline queue, storage backends and CLI."""
