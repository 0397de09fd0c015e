import asyncio
import sys

from src.core.config import ConfigManager
from src.core.logging import setup_logging
from src.bookfs.progress import TqdmProgressSink
from src.bookfs.replication import CancelToken
from src.bookfs.service import LibraryStorageService

USAGE = """Usage:
    python main.py list <library folder>
    python main.py delete <library folder> <title> [<title> ...]
"""

SOURCE_NAME = "cli"


async def async_main(argv):
    if len(argv) < 3 or argv[1] not in ("list", "delete"):
        print(USAGE)
        return 1

    command, folder, titles = argv[1], argv[2], argv[3:]

    config = ConfigManager("settings.json")
    setup_logging(config.data.general.debug_mode, config.data.general.log_dir)

    sink = TqdmProgressSink(desc=command.capitalize())

    async with LibraryStorageService(config, progress_sink=sink) as service:
        await service.add_local_source(SOURCE_NAME, folder)
        handler = service.get_handler(SOURCE_NAME)

        if command == "list":
            cards = await handler.get_book_list()
            sink.close()
            for card in sorted(cards, key=lambda c: c.title.lower()):
                print(f"{card.title}: {card.characters} chars, progress {card.progress:.0%}")
            print(f"{len(cards)} books")
            return 0

        await handler.get_book_list()
        result = await handler.delete_book_data(titles, CancelToken())
        sink.close()
        print(f"Deleted {len(result.deleted)} of {len(titles)} books")
        if result.error:
            print(result.error)
            return 2
        return 0


def main():
    return asyncio.run(async_main(sys.argv))


if __name__ == "__main__":
    sys.exit(main())
