from settings import settings
import psycopg

with psycopg.connect(settings.db_url) as conn:
    with conn.cursor() as cur:
        cur.execute("SELECT type, COUNT(*) FROM events GROUP BY type ORDER BY type")
        for kind, count in cur.fetchall():
            print(f'{kind} events:', count)
