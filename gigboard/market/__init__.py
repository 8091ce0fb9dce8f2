"""Marketplace domain: gigs, bids, users, hiring and notifications."""
