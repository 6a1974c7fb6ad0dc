# SQL schema for the Habla database

SCHEMA_VERSION = 4

SCHEMA_SQL = """
-- Local learner (single user, id 1)
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT UNIQUE NOT NULL,
    total_xp INTEGER NOT NULL DEFAULT 0,
    current_streak INTEGER NOT NULL DEFAULT 0,
    longest_streak INTEGER NOT NULL DEFAULT 0,
    last_active_date TEXT,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS user_settings (
    user_id INTEGER PRIMARY KEY,
    target_retention REAL NOT NULL DEFAULT 0.9 CHECK(target_retention BETWEEN 0.7 AND 0.99),
    FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE
);

-- Islands group cards by frequency band
CREATE TABLE IF NOT EXISTS islands (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    icon TEXT NOT NULL DEFAULT '',
    unlock_xp INTEGER NOT NULL DEFAULT 0,
    sort_order INTEGER NOT NULL DEFAULT 0
);

-- Vocabulary cards
CREATE TABLE IF NOT EXISTS cards (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    island_id INTEGER,
    term TEXT NOT NULL,
    translation TEXT NOT NULL DEFAULT '',
    example_sentence TEXT,
    notes TEXT,
    audio_url TEXT,
    frequency_rank INTEGER,
    source TEXT NOT NULL DEFAULT 'curriculum' CHECK(source IN ('curriculum', 'song')),
    source_song_id INTEGER,
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    FOREIGN KEY (island_id) REFERENCES islands (id) ON DELETE SET NULL,
    FOREIGN KEY (source_song_id) REFERENCES songs (id) ON DELETE SET NULL
);

-- Card search (FTS5)
CREATE VIRTUAL TABLE IF NOT EXISTS cards_fts USING fts5(
    term,
    translation,
    content='cards',
    content_rowid='id'
);

CREATE TRIGGER IF NOT EXISTS cards_ai AFTER INSERT ON cards BEGIN
    INSERT INTO cards_fts(rowid, term, translation)
    VALUES (new.id, new.term, new.translation);
END;

CREATE TRIGGER IF NOT EXISTS cards_ad AFTER DELETE ON cards BEGIN
    INSERT INTO cards_fts(cards_fts, rowid, term, translation)
    VALUES ('delete', old.id, old.term, old.translation);
END;

CREATE TRIGGER IF NOT EXISTS cards_au AFTER UPDATE ON cards BEGIN
    INSERT INTO cards_fts(cards_fts, rowid, term, translation)
    VALUES ('delete', old.id, old.term, old.translation);
    INSERT INTO cards_fts(rowid, term, translation)
    VALUES (new.id, new.term, new.translation);
END;

-- Mnemonic bridges stored alongside a card
CREATE TABLE IF NOT EXISTS bridges (
    card_id INTEGER PRIMARY KEY,
    hindi TEXT,
    dutch TEXT,
    english TEXT,
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    FOREIGN KEY (card_id) REFERENCES cards (id) ON DELETE CASCADE
);

-- Generated practice questions (mcq, fill_blank, sentence_build)
CREATE TABLE IF NOT EXISTS questions (
    card_id INTEGER NOT NULL,
    kind TEXT NOT NULL CHECK(kind IN ('mcq', 'fill_blank', 'sentence_build')),
    payload TEXT NOT NULL,
    source TEXT NOT NULL DEFAULT 'local' CHECK(source IN ('local', 'ai')),
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (card_id, kind),
    FOREIGN KEY (card_id) REFERENCES cards (id) ON DELETE CASCADE
);

-- Grammar rules explained next to cards
CREATE TABLE IF NOT EXISTS grammar_rules (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    rule_key TEXT UNIQUE NOT NULL,
    title TEXT NOT NULL,
    explanation TEXT NOT NULL DEFAULT '',
    examples TEXT NOT NULL DEFAULT '[]',
    difficulty_level INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS card_grammar (
    card_id INTEGER NOT NULL,
    grammar_rule_id INTEGER NOT NULL,
    PRIMARY KEY (card_id, grammar_rule_id),
    FOREIGN KEY (card_id) REFERENCES cards (id) ON DELETE CASCADE,
    FOREIGN KEY (grammar_rule_id) REFERENCES grammar_rules (id) ON DELETE CASCADE
);

-- Per-user FSRS memory state
CREATE TABLE IF NOT EXISTS card_progress (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    card_id INTEGER NOT NULL,
    stability REAL NOT NULL DEFAULT 0,
    difficulty REAL NOT NULL DEFAULT 0,
    elapsed_days INTEGER NOT NULL DEFAULT 0,
    scheduled_days INTEGER NOT NULL DEFAULT 0,
    reps INTEGER NOT NULL DEFAULT 0,
    lapses INTEGER NOT NULL DEFAULT 0,
    state TEXT NOT NULL DEFAULT 'new' CHECK(state IN ('new', 'learning', 'review', 'relearning')),
    step INTEGER,
    due TEXT,
    last_review TEXT,
    UNIQUE (user_id, card_id),
    FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE,
    FOREIGN KEY (card_id) REFERENCES cards (id) ON DELETE CASCADE
);

-- Append-only rating log
CREATE TABLE IF NOT EXISTS review_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    card_id INTEGER NOT NULL,
    rating INTEGER NOT NULL CHECK(rating BETWEEN 1 AND 4),
    elapsed_days INTEGER NOT NULL DEFAULT 0,
    scheduled_days INTEGER NOT NULL DEFAULT 0,
    duration_ms INTEGER NOT NULL DEFAULT 0,
    mode TEXT,
    reviewed_at TEXT NOT NULL DEFAULT (datetime('now')),
    FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE,
    FOREIGN KEY (card_id) REFERENCES cards (id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS daily_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    date TEXT NOT NULL,
    xp_earned INTEGER NOT NULL DEFAULT 0,
    cards_reviewed INTEGER NOT NULL DEFAULT 0,
    cards_correct INTEGER NOT NULL DEFAULT 0,
    new_cards_added INTEGER NOT NULL DEFAULT 0,
    UNIQUE (user_id, date),
    FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS achievements (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    code TEXT UNIQUE NOT NULL,
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    icon TEXT NOT NULL DEFAULT '',
    xp_reward INTEGER NOT NULL DEFAULT 0,
    condition_type TEXT NOT NULL CHECK(condition_type IN ('cards_reviewed', 'streak', 'words_learned')),
    condition_value INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS user_achievements (
    user_id INTEGER NOT NULL,
    achievement_id INTEGER NOT NULL,
    earned_at TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (user_id, achievement_id),
    FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE,
    FOREIGN KEY (achievement_id) REFERENCES achievements (id) ON DELETE CASCADE
);

-- Curriculum journey and daily lesson sessions
CREATE TABLE IF NOT EXISTS curriculum_journey (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER UNIQUE NOT NULL,
    start_date TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1,
    FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS lesson_sessions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    session_date TEXT NOT NULL,
    day_number INTEGER NOT NULL,
    phase_id INTEGER NOT NULL,
    cards_reviewed INTEGER NOT NULL DEFAULT 0,
    cards_correct INTEGER NOT NULL DEFAULT 0,
    new_cards_learned INTEGER NOT NULL DEFAULT 0,
    xp_earned INTEGER NOT NULL DEFAULT 0,
    started_at TEXT NOT NULL DEFAULT (datetime('now')),
    completed_at TEXT,
    UNIQUE (user_id, session_date),
    FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE
);

-- Songs with timed lyric lines
CREATE TABLE IF NOT EXISTS songs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    artist TEXT NOT NULL DEFAULT '',
    album TEXT,
    duration_seconds INTEGER,
    audio_path TEXT,
    difficulty INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS song_lines (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    song_id INTEGER NOT NULL,
    line_number INTEGER NOT NULL,
    start_time_ms INTEGER NOT NULL,
    end_time_ms INTEGER NOT NULL CHECK(end_time_ms > start_time_ms),
    spanish_text TEXT NOT NULL,
    english_text TEXT,
    UNIQUE (song_id, line_number),
    FOREIGN KEY (song_id) REFERENCES songs (id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS song_vocabulary (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    song_id INTEGER NOT NULL,
    card_id INTEGER,
    word TEXT NOT NULL,
    translation TEXT NOT NULL DEFAULT '',
    is_key_vocab INTEGER NOT NULL DEFAULT 0,
    FOREIGN KEY (song_id) REFERENCES songs (id) ON DELETE CASCADE,
    FOREIGN KEY (card_id) REFERENCES cards (id) ON DELETE SET NULL
);

CREATE TABLE IF NOT EXISTS song_progress (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    song_id INTEGER NOT NULL,
    stability REAL NOT NULL DEFAULT 0,
    difficulty REAL NOT NULL DEFAULT 0,
    reps INTEGER NOT NULL DEFAULT 0,
    lapses INTEGER NOT NULL DEFAULT 0,
    state TEXT NOT NULL DEFAULT 'new' CHECK(state IN ('new', 'learning', 'review', 'relearning')),
    due TEXT,
    last_review TEXT,
    vocab_complete INTEGER NOT NULL DEFAULT 0,
    lyrics_complete INTEGER NOT NULL DEFAULT 0,
    listening_complete INTEGER NOT NULL DEFAULT 0,
    total_listens INTEGER NOT NULL DEFAULT 0,
    UNIQUE (user_id, song_id),
    FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE,
    FOREIGN KEY (song_id) REFERENCES songs (id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS song_sessions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    song_id INTEGER NOT NULL,
    session_date TEXT NOT NULL,
    mode TEXT NOT NULL CHECK(mode IN ('vocab', 'lyrics', 'listening', 'full')),
    vocab_reviewed INTEGER NOT NULL DEFAULT 0,
    vocab_correct INTEGER NOT NULL DEFAULT 0,
    lines_studied INTEGER NOT NULL DEFAULT 0,
    blanks_correct INTEGER NOT NULL DEFAULT 0,
    blanks_total INTEGER NOT NULL DEFAULT 0,
    xp_earned INTEGER NOT NULL DEFAULT 0,
    started_at TEXT NOT NULL DEFAULT (datetime('now')),
    completed_at TEXT,
    FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE,
    FOREIGN KEY (song_id) REFERENCES songs (id) ON DELETE CASCADE
);
"""

# Indexes for performance
INDEXES_SQL = """
CREATE INDEX IF NOT EXISTS idx_cards_island_rank ON cards (island_id, frequency_rank, id);
CREATE INDEX IF NOT EXISTS idx_cards_source ON cards (source, source_song_id);
CREATE INDEX IF NOT EXISTS idx_cards_term ON cards (term);
CREATE INDEX IF NOT EXISTS idx_progress_user_due ON card_progress (user_id, state, due);
CREATE INDEX IF NOT EXISTS idx_progress_card ON card_progress (card_id);
CREATE INDEX IF NOT EXISTS idx_review_logs_user_ts ON review_logs (user_id, reviewed_at);
CREATE INDEX IF NOT EXISTS idx_review_logs_card ON review_logs (card_id);
CREATE INDEX IF NOT EXISTS idx_daily_logs_user_date ON daily_logs (user_id, date);
CREATE INDEX IF NOT EXISTS idx_lesson_sessions_user ON lesson_sessions (user_id, session_date);
CREATE INDEX IF NOT EXISTS idx_song_lines_song ON song_lines (song_id, line_number);
CREATE INDEX IF NOT EXISTS idx_song_vocab_song ON song_vocabulary (song_id);
CREATE INDEX IF NOT EXISTS idx_song_progress_user ON song_progress (user_id, due);
CREATE INDEX IF NOT EXISTS idx_song_sessions_user ON song_sessions (user_id, song_id, session_date);
CREATE INDEX IF NOT EXISTS idx_card_grammar_rule ON card_grammar (grammar_rule_id);
"""

# Static rows every install needs
SEED_SQL = """
INSERT OR IGNORE INTO users (id, username) VALUES (1, 'learner');

INSERT OR IGNORE INTO islands (id, name, description, icon, unlock_xp, sort_order) VALUES
    (1, 'Core Essentials', 'The 100 most frequent words', '🏝️', 0, 1),
    (2, 'Common Words', 'Frequency ranks 101-250', '🌴', 0, 2),
    (3, 'Expanding Vocabulary', 'Frequency ranks 251-500', '🌊', 0, 3),
    (4, 'Advanced Vocabulary', 'Frequency ranks 501-1000', '⛰️', 500, 4),
    (5, 'Everyday Life', 'Home, food and routines', '🏠', 1000, 5),
    (6, 'People & Feelings', 'Family, friends and emotions', '💬', 1500, 6),
    (7, 'Travel & Places', 'Getting around', '✈️', 2000, 7),
    (8, 'Work & Study', 'Jobs, school and numbers', '📚', 2500, 8),
    (9, 'Music & Culture', 'Words from songs', '🎵', 3000, 9);

INSERT OR IGNORE INTO achievements (code, name, description, icon, xp_reward, condition_type, condition_value) VALUES
    ('first_review', 'First Steps', 'Review your first card', '👣', 10, 'cards_reviewed', 1),
    ('reviews_100', 'Century', 'Review 100 cards', '💯', 50, 'cards_reviewed', 100),
    ('reviews_500', 'Dedicated', 'Review 500 cards', '🔥', 100, 'cards_reviewed', 500),
    ('streak_3', 'Warming Up', 'Keep a 3 day streak', '🌱', 25, 'streak', 3),
    ('streak_7', 'Week Warrior', 'Keep a 7 day streak', '📅', 75, 'streak', 7),
    ('streak_14', 'Sprint Finisher', 'Keep a 14 day streak', '🏁', 150, 'streak', 14),
    ('words_100', 'Word Collector', 'Learn 100 words', '📖', 50, 'words_learned', 100),
    ('words_500', 'Halfway There', 'Learn 500 words', '🧭', 150, 'words_learned', 500),
    ('words_1000', 'Thousand Words', 'Learn 1000 words', '🏆', 300, 'words_learned', 1000);
"""
