"""versesync - Offline mutation queue with conflict resolution."""
