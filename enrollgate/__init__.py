"""enrollgate - Email enrollment with one-time verification codes."""
