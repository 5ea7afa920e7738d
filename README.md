# huntr

A job-hunting pipeline. It takes scraped job listings and turns them into a
ranked shortlist:

1. **Normalise.** Titles are tidied and their abbreviations expanded, so
   "sr dev" becomes "Senior Developer". Salaries are parsed, so "£60k" becomes
   60000. Locations and work types are standardised and duplicates are removed.
2. **Score.** Each job is scored against your preferences. The score counts
   weighted primary, secondary and adjacent skill groups, takes off a penalty
   for excluded skills, and adds points for domain keywords, a preferred
   location and a salary at or above the minimum.
3. **Process a CV.** An uploaded CV, as DOCX or plain text, is parsed and cut
   into chunks. The chunks are embedded through an Ollama server and stored in
   an on-disk vector store. The server also extracts a profile of skills and
   domains from the CV. This profile adds up to three skills and two domains to
   the preferences used for scoring.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Running the processor service

```
huntr-processor
```

Options:

- `--data-root DIR` sets the base data directory. The default is `/data`.
- `--once` runs a single poll cycle and exits.

Each poll cycle does the following. Paths are relative to the data root.

- It rotates the log and writes a heartbeat file to `state/processor_heartbeat`.
- If a CV is waiting at `cv/cv-latest/cv_uploaded.docx`, it processes it. A
  `.processing_lock` file next to the CV stops two runs working at once. The
  profile is saved to `cv/cv_profile.json`, and the CV is then moved to
  `cv/cv-processed/cv_processed_<timestamp>.docx`.
- If the newest `*.json` file in `jobs/raw` has not been handled yet, it
  normalises and scores the jobs in it. The results are written to
  `jobs/normalised/jobs_normalised_<timestamp>.json` and
  `jobs/scored/jobs_scored_<timestamp>.json`.

Configuration is read from `config/config.json`. Embedded CV chunks are kept
in `chromadb/`. A failure in one step is logged, and the loop goes on. SIGINT
or SIGTERM stops the service after the current cycle.

### Environment variables

| Variable                  | Meaning                                              | Default                      |
|---------------------------|------------------------------------------------------|------------------------------|
| `PROCESSOR_POLL_INTERVAL` | Seconds between poll cycles                          | `60`                         |
| `LOG_LEVEL`               | `debug`, `info`, `warn` or `error`                   | `info`                       |
| `OLLAMA_HOST`             | `host:port` of the Ollama server                     | `host.docker.internal:11434` |

Logs go as JSON lines to stdout and to `logs/processor.log`. Once the log grows
past 100,000 bytes, it is moved into `logs/archive`. Archives older than 24
hours are deleted.

## Using the library

```python
from huntr import config, normaliser, scorer
from huntr.models import Job

cfg = config.default()
raw = [Job(title="sr go dev", company="Acme", location="wfh", salary="£110k")]
jobs = scorer.score_jobs(normaliser.normalise_jobs(raw), cfg.preferences)
for job in jobs:
    print(job.score, job.title, job.score_breakdown.to_dict())
```

Modules:

- `huntr.models`: the `Job`, `ScoreBreakdown`, `CVProfile` and `CVChunk`
  records, each with `to_dict()`. `Job` and `CVProfile` also have
  `from_dict()`.
- `huntr.config`: `default()`, plus `load(path)` and `save(path, cfg)` to read
  and write `config.json`. Errors raise `ConfigError`.
  `Preferences.effective_role_profile()` returns the skill groups used in
  scoring.
- `huntr.normaliser`: `normalise_title`, `parse_salary`,
  `standardise_location`, `standardise_work_type`, `clean_text`,
  `remove_duplicates` and `normalise_jobs`.
- `huntr.scorer`: `score_job`, `score_jobs`, `rank_jobs` and the keyword and
  location matchers.
- `huntr.cv_parser`: `parse_cv_docx(path)` reads a DOCX file and falls back to
  reading it as plain text.
- `huntr.chunker`: `chunk_text(text, 600, 120)` splits CV text.
  `create_lock_file` and `remove_lock_file` manage the processing lock.
- `huntr.ollama`: `select_model`, `generate_embeddings`, `extract_profile` and
  `save_profile`. Server failures raise `OllamaError`.
- `huntr.vector_db`: `VectorDB(path)` keeps collections of embedded documents
  as JSON files. `store_cv_chunks(...)` stores chunks and keeps only the two
  newest collections.
- `huntr.fetcher`: `Fetcher` fetches pages over HTTP. It rotates the user
  agent, retries with jittered backoff, and puts a domain into a 15-minute
  cooldown after repeated 403 responses. Failures raise `FetchError`.
- `huntr.error_reporter`: `ErrorReporter` appends scrape errors to a file as
  JSON lines.
- `huntr.logsetup`: `setup_logger`, `setup_logger_with_file` and
  `touch_heartbeat`.

## What it does not do

- It has no scraper service and no job board parsers. `Fetcher` can fetch
  pages, but the raw job files in `jobs/raw` have to come from elsewhere.
- It cannot render pages with a headless browser.
  `Fetcher.fetch_dynamic` checks the cooldown and then does a plain HTTP
  fetch.
- It has no web interface and sends no e-mail notifications. The e-mail
  settings in the configuration are only read and written.
- The vector store only stores documents. It does not offer similarity search.