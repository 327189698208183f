"""larder - household consumables reminders."""
