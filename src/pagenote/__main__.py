from pagenote.cli import run

run()
