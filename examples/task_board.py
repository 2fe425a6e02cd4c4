#!/usr/bin/env python3
"""
Task Board - Store-relative references and validation.

Tasks refer to users by id; the reference "~users" is resolved against
the store the task belongs to.

Usage:
    python examples/task_board.py
"""

from trellis import Collection, Record, Store, from_


class User(Record):
    attributes = {"id": None, "name": ""}


class Users(Collection):
    model = User


class Task(Record):
    attributes = {"title": "", "assignee": from_("~users")}

    def validate(self):
        return None if self.title else "title is required"


class Tasks(Collection):
    model = Task


class Board(Store):
    attributes = {"users": Users, "tasks": Tasks}


def main():
    board = Board({
        "users": [{"id": 1, "name": "Ann"}, {"id": 2, "name": "Bob"}],
        "tasks": [
            {"title": "Write docs", "assignee": 1},
            {"title": "", "assignee": 2},
        ],
    })

    board.on("change:tasks", lambda record, value, options: print("  tasks changed"))

    for task in board.tasks:
        print(f"{task.title or '<untitled>'}: {task.assignee.name}")

    print()
    print("Reassigning the first task:")
    board.tasks[0].set({"assignee": 2})
    print(f"  now assigned to {board.tasks[0].assignee.name}")

    print()
    print("Validation errors:")
    error = board.validation_error
    if error:
        error.each_error(lambda message, key, obj: print(f"  {obj.cid}: {message}"), board)


if __name__ == "__main__":
    main()
