"""VidTube user-account backend."""
