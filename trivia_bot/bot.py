import discord
from discord import app_commands
from discord.ext import commands
import logging
import os
from typing import Dict, List, Optional

from .config_manager import ConfigManager
from .models import (
    CompletionReason,
    QuizConfiguration,
    SessionPhase,
    SessionState,
    SessionSummary,
    TimerDuration,
    display_text,
    format_time,
)
from .quiz_controller import QuizController
from .quiz_resolver import QuizResolver
from .trivia_client import TriviaClient

logger = logging.getLogger(__name__)

BUTTON_LABEL_LIMIT = 80
COLOR_RUNNING = 0x0099ff
COLOR_LOW_TIME = 0xff0000
COLOR_COMPLETE = 0x00ff00
COLOR_INFO = 0x6699ff
COLOR_WARNING = 0xffaa00

DIFFICULTY_CHOICES = [
    app_commands.Choice(name="Easy", value=0.0),
    app_commands.Choice(name="Medium", value=1.0),
    app_commands.Choice(name="Hard", value=2.0),
]
TYPE_CHOICES = [
    app_commands.Choice(name="Any Type", value="Any Type"),
    app_commands.Choice(name="Multiple Choice", value="Multiple Choice"),
    app_commands.Choice(name="True or False", value="True or False"),
]
TIMER_CHOICES = [
    app_commands.Choice(name=duration.value, value=duration.seconds)
    for duration in TimerDuration
]


def _button_label(text: str) -> str:
    label = display_text(text)
    if len(label) > BUTTON_LABEL_LIMIT:
        label = label[:BUTTON_LABEL_LIMIT - 1] + "…"
    return label


def should_refresh_countdown(remaining: int) -> bool:
    """Countdown edits are throttled to every 10 seconds and each of the last 5."""
    return remaining % 10 == 0 or remaining <= 5


def build_question_embed(state: SessionState) -> discord.Embed:
    """Render the current question of a running session."""
    question = state.current_question
    embed = discord.Embed(
        title=f"Question {state.current_index + 1} of {state.total_questions}",
        description=f"**{question.display_prompt}**",
        color=COLOR_LOW_TIME if state.time_remaining < 10 else COLOR_RUNNING
    )
    embed.add_field(name="⏱️ Time", value=format_time(state.time_remaining), inline=True)
    embed.add_field(name="📚 Category", value=display_text(question.category), inline=True)
    embed.add_field(name="🎚️ Difficulty", value=question.difficulty.capitalize(), inline=True)
    if state.selected_answer is not None:
        embed.set_footer(text=f"Selected: {display_text(state.selected_answer)}")
    return embed


def build_summary_embed(summary: SessionSummary) -> discord.Embed:
    """Render the final score of a completed session."""
    embed = discord.Embed(
        title="Game Complete! 🎉",
        description="Your Final Score:",
        color=COLOR_COMPLETE
    )
    embed.add_field(name="Score", value=f"**{summary.score} out of {summary.total}**", inline=False)
    embed.add_field(name="Percentage", value=f"{summary.percentage}%", inline=False)
    if summary.reason is CompletionReason.TIMED_OUT:
        embed.add_field(
            name="⏰ Time's up!",
            value="The unanswered question was not scored.",
            inline=False
        )
    return embed


class QuizGameView(discord.ui.View):
    """Interactive message for one player's quiz: answer buttons, next button and summary."""

    def __init__(self, bot: "QuizBot", player_id: int, configuration: Optional[QuizConfiguration] = None):
        super().__init__(timeout=None)
        self.bot = bot
        self.player_id = player_id
        self.configuration = configuration
        self.message: Optional[discord.Message] = None

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        if interaction.user.id != self.player_id:
            await interaction.response.send_message("🙅 This quiz belongs to someone else.", ephemeral=True)
            return False
        return True

    def render_question(self, state: SessionState) -> discord.Embed:
        """Rebuild the buttons for the current question and return its embed."""
        self.clear_items()
        for index, answer in enumerate(state.shuffled_answers):
            button = discord.ui.Button(
                label=_button_label(answer),
                style=discord.ButtonStyle.primary if answer == state.selected_answer else discord.ButtonStyle.secondary,
                row=index // 5
            )
            button.callback = self._make_answer_callback(answer)
            self.add_item(button)

        if state.selected_answer is not None:
            next_button = discord.ui.Button(
                label="Finish Game" if state.is_last_question else "Next Question",
                style=discord.ButtonStyle.success,
                row=4
            )
            next_button.callback = self._on_next
            self.add_item(next_button)

        return build_question_embed(state)

    def render_summary(self, summary: SessionSummary) -> discord.Embed:
        self.clear_items()
        if self.configuration is not None:
            play_again = discord.ui.Button(label="Play Again", style=discord.ButtonStyle.success)
            play_again.callback = self._on_play_again
            self.add_item(play_again)
        dismiss = discord.ui.Button(label="Dismiss", style=discord.ButtonStyle.secondary)
        dismiss.callback = self._on_dismiss
        self.add_item(dismiss)
        return build_summary_embed(summary)

    def _make_answer_callback(self, answer: str):
        async def callback(interaction: discord.Interaction):
            result = self.bot.quiz_controller.select_answer(self.player_id, answer)
            if not result['success']:
                await interaction.response.send_message(result['user_message'], ephemeral=True)
                return
            embed = self.render_question(result['state'])
            await interaction.response.edit_message(embed=embed, view=self)
        return callback

    async def _on_next(self, interaction: discord.Interaction):
        await interaction.response.defer()
        result = await self.bot.quiz_controller.advance(self.player_id)
        if not result['success']:
            await interaction.followup.send(result['user_message'], ephemeral=True)
            return
        # Completion is rendered by the session's completion listener
        if not result['completed']:
            await self._edit(embed=self.render_question(result['state']), view=self)

    async def _on_play_again(self, interaction: discord.Interaction):
        """Replace the finished game with a new one using the same settings."""
        await interaction.response.defer()
        self.bot.quiz_controller.abandon(self.player_id)
        self.bot.forget_game(self.player_id, self)
        self.stop()
        await self._edit(content="🔁 Starting a new game...", embed=None, view=None)
        await self.bot.launch_game(interaction, self.configuration)

    async def _on_dismiss(self, interaction: discord.Interaction):
        self.bot.quiz_controller.abandon(self.player_id)
        self.bot.forget_game(self.player_id, self)
        self.stop()
        await interaction.response.edit_message(
            content="Use `/trivia` to start a new game.",
            view=None
        )

    async def on_tick(self, state: SessionState) -> None:
        """Session tick listener: refresh the countdown on the game message."""
        if self.message is None or state.phase is not SessionPhase.RUNNING:
            return
        if should_refresh_countdown(state.time_remaining):
            await self._edit(embed=build_question_embed(state), view=self)

    async def on_complete(self, summary: SessionSummary) -> None:
        """Session completion listener: replace the question with the final score."""
        embed = self.render_summary(summary)
        if self.message is not None:
            await self._edit(embed=embed, view=self)

    async def show_stopped(self) -> None:
        self.clear_items()
        self.stop()
        if self.message is not None:
            await self._edit(content="🛑 Quiz stopped.", embed=None, view=None)

    async def _edit(self, **kwargs) -> None:
        try:
            await self.message.edit(**kwargs)
        except discord.HTTPException as e:
            logger.error(f"Failed to update quiz message for player {self.player_id}: {e}")


class QuizBot(commands.Bot):
    """Discord bot for playing timed trivia quizzes"""

    def __init__(self, config=None):
        intents = discord.Intents.none()
        intents.guilds = True  # Required for slash commands

        command_prefix = '!'
        if config and 'bot' in config:
            command_prefix = config['bot'].get('command_prefix', '!')

        super().__init__(
            command_prefix=command_prefix,
            intents=intents,
            help_command=None
        )

        self.app_config = config or {}

        self.config_manager: Optional[ConfigManager] = None
        self.trivia_client: Optional[TriviaClient] = None
        self.resolver: Optional[QuizResolver] = None
        self.quiz_controller: Optional[QuizController] = None
        self._games: Dict[int, QuizGameView] = {}

    async def setup_hook(self):
        """Called when the bot is starting up"""
        try:
            logger.info("Setting up bot components...")

            self.config_manager = ConfigManager()
            if self.app_config:
                self.config_manager.apply_config(self.app_config)

            self.trivia_client = TriviaClient(
                base_url=self.config_manager.get_provider_url(),
                timeout=self.config_manager.get_request_timeout()
            )
            self.resolver = QuizResolver(self.trivia_client)
            self.quiz_controller = QuizController(self.resolver)

            # Non-fatal: "Any Category" stays usable when this fails
            await self.resolver.load_categories()

            await self.setup_commands()

            logger.info("Bot setup completed successfully")

        except Exception as e:
            logger.error(f"Error during bot setup: {e}")
            raise

    async def setup_commands(self):
        """Register all slash commands"""

        @self.tree.command(name="help", description="Display available commands and their descriptions")
        async def help_command(interaction: discord.Interaction):
            await self.handle_help(interaction)

        @self.tree.command(name="categories", description="List the available trivia categories")
        async def categories_command(interaction: discord.Interaction):
            await self.handle_categories(interaction)

        @self.tree.command(name="trivia", description="Start a timed trivia quiz")
        @app_commands.describe(
            questions="Number of questions (1-50)",
            category="Category name, leave empty for any category",
            difficulty="Question difficulty",
            question_type="Question format",
            timer="Time limit for the whole quiz"
        )
        @app_commands.choices(difficulty=DIFFICULTY_CHOICES, question_type=TYPE_CHOICES, timer=TIMER_CHOICES)
        async def trivia_command(
            interaction: discord.Interaction,
            questions: Optional[int] = None,
            category: Optional[str] = None,
            difficulty: Optional[app_commands.Choice[float]] = None,
            question_type: Optional[app_commands.Choice[str]] = None,
            timer: Optional[app_commands.Choice[int]] = None
        ):
            await self.handle_trivia(
                interaction,
                questions=questions,
                category=category,
                difficulty=difficulty.value if difficulty else None,
                question_type=question_type.value if question_type else None,
                timer=timer.value if timer else None
            )

        @trivia_command.autocomplete('category')
        async def category_autocomplete(interaction: discord.Interaction, current: str):
            return [
                app_commands.Choice(name=name, value=name)
                for name in self.match_categories(current)
            ]

        @self.tree.command(name="status", description="Show your quiz progress")
        async def status_command(interaction: discord.Interaction):
            await self.handle_status(interaction)

        @self.tree.command(name="quit", description="Stop your current quiz")
        async def quit_command(interaction: discord.Interaction):
            await self.handle_quit(interaction)

        logger.info("Slash commands registered successfully")

    def match_categories(self, current: str, limit: int = 25) -> List[str]:
        needle = (current or "").lower()
        names = [c.name for c in self.resolver.categories if needle in c.name.lower()]
        return names[:limit]

    def forget_game(self, player_id: int, view: QuizGameView) -> None:
        if self._games.get(player_id) is view:
            del self._games[player_id]

    async def on_ready(self):
        """Called when the bot has successfully connected to Discord"""
        logger.info(f"Bot is ready! Logged in as {self.user}")
        logger.info(f"Bot is in {len(self.guilds)} guilds")
        try:
            synced = await self.tree.sync()
            logger.info(f"Synced {len(synced)} slash commands")
        except discord.HTTPException as e:
            logger.error(f"Failed to sync slash commands: {e}")

    async def on_error(self, event, *args, **kwargs):
        """Handle general bot errors"""
        logger.error(f"An error occurred in event {event}", exc_info=True)

    async def close(self):
        if self.quiz_controller is not None:
            self.quiz_controller.shutdown()
        if self.trivia_client is not None:
            self.trivia_client.close()
        await super().close()

    async def handle_help(self, interaction: discord.Interaction):
        """Handle /help command"""
        try:
            embed = discord.Embed(
                title="🎯 Trivia Bot Commands",
                description="Play a timed trivia quiz with questions from the Open Trivia Database",
                color=COLOR_COMPLETE
            )
            embed.add_field(
                name="🎮 Playing",
                value=(
                    "`/trivia` - Start a quiz (questions, category, difficulty, type, timer)\n"
                    "`/status` - Show your progress and remaining time\n"
                    "`/quit` - Stop your current quiz"
                ),
                inline=False
            )
            embed.add_field(
                name="📚 Information",
                value=(
                    "`/categories` - List available categories\n"
                    "`/help` - Show this message"
                ),
                inline=False
            )
            embed.add_field(
                name="⚙️ Defaults",
                value=self.config_manager.get_settings_summary(),
                inline=False
            )
            await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException as e:
            logger.error(f"Error in help command: {e}")

    async def handle_categories(self, interaction: discord.Interaction):
        """Handle /categories command"""
        categories = self.resolver.categories
        if not categories:
            await self.send_warning_response(
                interaction,
                "Categories could not be loaded. You can still play with **Any Category**.",
                "⚠️ Categories Unavailable"
            )
            return

        names = "\n".join(f"• {c.name}" for c in categories)
        embed = discord.Embed(
            title="📚 Trivia Categories",
            description=names[:4000],
            color=COLOR_INFO
        )
        embed.set_footer(text="Leave the category empty to play with Any Category")
        try:
            await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException as e:
            logger.error(f"Error in categories command: {e}")

    async def handle_trivia(
        self,
        interaction: discord.Interaction,
        questions: Optional[int] = None,
        category: Optional[str] = None,
        difficulty: Optional[float] = None,
        question_type: Optional[str] = None,
        timer: Optional[int] = None
    ):
        """Handle /trivia command: validate settings, fetch questions and post the game message"""
        player_id = interaction.user.id

        chosen_category = None
        if category:
            chosen_category = self.resolver.find_category(category)
            if chosen_category is None:
                await self.send_error_response(
                    interaction,
                    f"Unknown category: {category}. Use `/categories` to see the list.",
                    "❌ Invalid Category"
                )
                return

        config_result = self.config_manager.build_configuration(
            question_count=questions,
            category=chosen_category,
            difficulty=difficulty,
            question_type=question_type,
            timer_duration=timer
        )
        if not config_result['success']:
            await self.send_error_response(interaction, config_result['user_message'], "❌ Invalid Settings")
            return

        if self.quiz_controller.has_active_session(player_id):
            await self.send_warning_response(
                interaction,
                "You already have a quiz running. Finish it or use `/quit` first.",
                "⚠️ Quiz In Progress"
            )
            return

        await interaction.response.defer(ephemeral=True, thinking=True)
        await self.launch_game(interaction, config_result['configuration'])

    async def launch_game(self, interaction: discord.Interaction, configuration: QuizConfiguration):
        """Fetch questions and post a new game message. The interaction must already be deferred."""
        player_id = interaction.user.id
        view = QuizGameView(self, player_id, configuration)
        result = await self.quiz_controller.start_quiz(
            player_id,
            configuration,
            on_tick=view.on_tick,
            on_complete=view.on_complete
        )
        if not result['success']:
            view.stop()
            await self.send_error_response(interaction, result['user_message'], "❌ Could Not Start Quiz")
            return

        previous = self._games.pop(player_id, None)
        if previous is not None:
            previous.stop()
        self._games[player_id] = view

        embed = view.render_question(result['state'])
        try:
            view.message = await interaction.channel.send(
                content=f"{interaction.user.mention}'s trivia game",
                embed=embed,
                view=view
            )
            await interaction.followup.send(
                f"✅ Quiz started! {self.config_manager.describe_configuration(configuration)}",
                ephemeral=True
            )
        except discord.HTTPException as e:
            logger.error(f"Failed to post quiz for player {player_id}: {e}")
            self.quiz_controller.abandon(player_id)
            self.forget_game(player_id, view)
            view.stop()
            await self.send_error_response(interaction, "Could not post the quiz in this channel.", "❌ Discord Error")

    async def handle_status(self, interaction: discord.Interaction):
        """Handle /status command"""
        progress = self.quiz_controller.get_session_progress(interaction.user.id)
        if progress is None:
            await self.send_info_response(
                interaction,
                "You don't have a quiz in progress. Use `/trivia` to start one.",
                "ℹ️ No Active Quiz"
            )
            return

        status_text = "▶️ Running" if progress['is_running'] else "✅ Complete"
        embed = discord.Embed(title=f"Quiz Status - {status_text}", color=COLOR_INFO)
        embed.add_field(
            name="📊 Progress",
            value=f"Question: {progress['current_question']}/{progress['total_questions']}",
            inline=True
        )
        embed.add_field(name="⏱️ Time Left", value=format_time(progress['time_remaining']), inline=True)
        embed.add_field(name="⏲️ Time Limit", value=progress['timer_duration'], inline=True)
        try:
            await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException as e:
            logger.error(f"Error in status command: {e}")

    async def handle_quit(self, interaction: discord.Interaction):
        """Handle /quit command"""
        player_id = interaction.user.id
        result = self.quiz_controller.abandon(player_id)
        if not result['success']:
            await self.send_info_response(interaction, result['user_message'], "ℹ️ No Active Quiz")
            return

        view = self._games.pop(player_id, None)
        if view is not None:
            await view.show_stopped()

        await self.send_info_response(interaction, "Your quiz has been stopped. No score was recorded.", "🛑 Quiz Stopped")

    async def send_error_response(self, interaction: discord.Interaction, message: str, title: str = "❌ Error"):
        """Send formatted error response to user"""
        embed = discord.Embed(title=title, description=message, color=0xff0000)
        embed.set_footer(text="If this error persists, try using /help for available commands")
        await self._send_embed(interaction, embed)

    async def send_info_response(self, interaction: discord.Interaction, message: str, title: str = "ℹ️ Information"):
        """Send formatted info response to user"""
        await self._send_embed(interaction, discord.Embed(title=title, description=message, color=COLOR_INFO))

    async def send_warning_response(self, interaction: discord.Interaction, message: str, title: str = "⚠️ Warning"):
        """Send formatted warning response to user"""
        await self._send_embed(interaction, discord.Embed(title=title, description=message, color=COLOR_WARNING))

    async def _send_embed(self, interaction: discord.Interaction, embed: discord.Embed):
        try:
            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error("Failed to send response to user")


async def run_bot(token=None, config=None):
    """Run the bot with proper error handling"""
    if not token:
        token = os.getenv('DISCORD_BOT_TOKEN')

    if not token:
        logger.error("No Discord bot token provided")
        return

    bot = QuizBot(config)

    try:
        logger.info("Starting Trivia Quiz Bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()
