from typing import List, Optional


class Colors:
    BLUE = '\033[94m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    CYAN = '\033[96m'
    MAGENTA = '\033[95m'
    GRAY = '\033[90m'
    DIM = '\033[2m'
    RESET = '\033[0m'
    BOLD = '\033[1m'


LEVEL_COLORS = {
    'info': Colors.CYAN,
    'warning': Colors.YELLOW,
    'danger': Colors.RED + Colors.BOLD,
}


def print_colored(text: str, color: str = Colors.RESET) -> None:
    print(f"{color}{text}{Colors.RESET}")


def get_user_confirmation(prompt: str) -> bool:
    """Ask user for yes/no confirmation in the console."""
    while True:
        try:
            response = input(f"{prompt} (y/n): ").strip().lower()
        except EOFError:
            return False
        if response in ["y", "yes"]:
            return True
        if response in ["n", "no"]:
            return False
        print("Please answer 'y' or 'n'")


def select_option(title: str, options: List[str]) -> Optional[str]:
    """Numbered menu; an empty answer picks the first option."""
    print_colored(title, Colors.BOLD)
    for i, option in enumerate(options, 1):
        print(f"  {i}) {option}")
    while True:
        try:
            answer = input(f"Choice [1-{len(options)}]: ").strip()
        except EOFError:
            return None
        if not answer:
            return options[0]
        if answer.isdigit() and 1 <= int(answer) <= len(options):
            return options[int(answer) - 1]
        print(f"Please enter a number between 1 and {len(options)}")


def print_box(title: str, body: str, color: str = Colors.GREEN) -> None:
    lines = body.rstrip('\n').split('\n') if body else ['']
    width = max([len(title) + 2] + [len(line) for line in lines])
    print_colored(f"┌─ {title} " + "─" * max(0, width - len(title) - 1) + "┐", color)
    for line in lines:
        print_colored(f"│ {line.ljust(width)} │", color)
    print_colored("└" + "─" * (width + 2) + "┘", color)
