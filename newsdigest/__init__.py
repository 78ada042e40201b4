"""newsdigest - personalized news digests from RSS feeds and keyword watches."""
