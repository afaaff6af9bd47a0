from setuptools import setup, find_packages

setup(
    name="minesweeper_arena",
    version="0.1",
    packages=find_packages(exclude=("tests", "tests.*")),
    package_data={"minegame": ["game_config.yaml"]},
    install_requires=[
        "flask",
        "pyyaml",
        "numpy"
    ],
    extras_require={
        "test": ["pytest"]
    },
    entry_points={
        "console_scripts": [
            "minesweeper-server=webapp.app:main",
            "minesweeper-leaderboard=reports.leaderboard:main"
        ]
    },
)
