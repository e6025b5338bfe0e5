from setuptools import setup, find_packages

setup(
    name="calendar-alarm",
    version="0.1.0",
    description="Calendar Alarm - rings before the first calendar event of each day",
    python_requires=">=3.10",
    packages=find_packages(include=["calendar_alarm", "calendar_alarm.*"]),
    install_requires=[
        "apscheduler>=3.10.0,<4",
        "python-dotenv>=1.0.0",
        "loguru>=0.7.0",
        "pyyaml>=6.0",
        "icalendar>=5.0",
        "recurring-ical-events>=2.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "calendar-alarm=calendar_alarm.main:main",
        ],
    },
)
