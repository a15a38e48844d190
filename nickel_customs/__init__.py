"""nickel-customs: GitHub check runs for Nickel package sanity."""
