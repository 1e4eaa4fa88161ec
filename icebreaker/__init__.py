"""icebreaker.ai scheduling backend"""
