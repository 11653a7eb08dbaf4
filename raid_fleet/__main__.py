# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import sys

from raid_fleet._cli import main


def run():
    sys.exit(main(sys.argv[1:]))


if __name__ == '__main__':
    run()
