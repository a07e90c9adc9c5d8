"""Trivia Quiz Bot: timed trivia quizzes for Discord backed by the Open Trivia Database."""
