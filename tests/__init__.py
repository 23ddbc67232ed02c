import os

# Must be set before flightviz.config is first imported
os.environ.setdefault('DATABASE_URL', 'sqlite:///:memory:')
