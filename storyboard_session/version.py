"""Storyboard Session Meta information.
   Storyboard Session keeps provider API keys in process memory behind
   short-lived tokens and drives backoff polling of video generation jobs.
"""
__title__ = 'storyboard_session'
__description__ = (
   'In-memory API key sessions and backoff polling '
   'for storyboard video generation jobs.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2025 Storyboard Team'
__author__ = 'Storyboard Team'
__author_email__ = 'dev@storyboard.invalid'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/storyboard/storyboard-session'
