"""Three-arm bandit game: environment, trial recording and session storage."""
