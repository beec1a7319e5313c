"""iCalendar parsing, value decoding, data model and recurrence expansion."""
